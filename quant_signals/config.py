"""
Configuration Management
========================
Central configuration for the signal engine.

Every component takes its own dataclass config. Plain dicts coming from the
UI or a JSON file are accepted through ``from_dict``: unrecognized keys are
ignored and missing keys keep their documented defaults.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, asdict, replace
from typing import Dict, Optional
import json
import logging
import os

from .exceptions import ConfigError


def _known_fields(cls, data: Optional[dict]) -> dict:
    """Keep only the keys ``cls`` declares."""
    if not data:
        return {}
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


class _DictMixin:
    """``from_dict`` / ``to_dict`` shared by the component configs."""

    @classmethod
    def from_dict(cls, data: Optional[dict]):
        config = cls(**_known_fields(cls, data))
        config.validate()
        return config

    @classmethod
    def resolve(cls, config=None):
        """Component config from None (defaults), a plain dict or an instance."""
        if config is None:
            return cls()
        if isinstance(config, Mapping):
            return cls.from_dict(config)
        config.validate()
        return config

    def to_dict(self) -> dict:
        return asdict(self)

    def validate(self):
        pass


@dataclass
class RegimeConfig(_DictMixin):
    """Market regime detector configuration."""
    adx_period: int = 14
    rsi_period: int = 14
    ema_period: int = 21
    volume_lookback: int = 20

    # ADX thresholds
    strong_trend_adx: float = 25.0
    weak_trend_adx: float = 15.0

    # Larger DI must exceed the smaller one by this factor for a strong trend
    di_ratio_threshold: float = 1.2

    # Regime change history kept for display
    max_history: int = 100

    def validate(self):
        for name in ('adx_period', 'rsi_period', 'ema_period'):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be >= 1")
        if self.volume_lookback < 2:
            raise ConfigError("volume_lookback must be >= 2")
        if self.strong_trend_adx <= 0:
            raise ConfigError("strong_trend_adx must be positive")
        if self.weak_trend_adx < 0:
            raise ConfigError("weak_trend_adx must be >= 0")
        if self.weak_trend_adx > self.strong_trend_adx:
            raise ConfigError("weak_trend_adx must not exceed strong_trend_adx")
        if self.di_ratio_threshold < 1:
            raise ConfigError("di_ratio_threshold must be >= 1")
        if self.max_history < 1:
            raise ConfigError("max_history must be >= 1")


@dataclass
class SignalConfig(_DictMixin):
    """Signal generator configuration."""
    # RSI thresholds
    rsi_buy: float = 30.0
    rsi_sell: float = 70.0

    # Minimum time between non-HOLD signals
    cooldown_ms: int = 5 * 60 * 1000

    # Volume gate: last volume must reach volume_threshold x volume SMA
    volume_threshold: float = 1.0
    volume_period: int = 20

    # Bollinger bands
    bollinger_period: int = 20
    bollinger_k: float = 2.0

    # EMA crossover
    ema_fast: int = 12
    ema_slow: int = 26

    # Volume confirmation / spike
    volume_confirm_lookback: int = 3
    volume_spike_lookback: int = 20
    volume_spike_multiplier: float = 2.5

    # ATR price targets
    atr_period: int = 14
    atr_multiplier: float = 2.5
    risk_reward_ratio: float = 2.0
    include_targets: bool = True

    def validate(self):
        if self.rsi_buy > self.rsi_sell:
            raise ConfigError("rsi_buy must not exceed rsi_sell")
        if self.cooldown_ms < 0:
            raise ConfigError("cooldown_ms must be >= 0")
        if self.ema_fast >= self.ema_slow:
            raise ConfigError("ema_fast must be shorter than ema_slow")
        for name in ('volume_period', 'bollinger_period', 'atr_period',
                     'volume_confirm_lookback', 'volume_spike_lookback'):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be >= 1")


@dataclass(frozen=True)
class BacktestRules:
    """Trade lifecycle rules a backtest preset resolves to."""
    min_confidence: float
    stop_pct: float
    limit_pct: float
    breakeven_after: int
    cooldown_candles: int


BACKTEST_PRESETS: Dict[str, BacktestRules] = {
    'default': BacktestRules(
        min_confidence=60,
        stop_pct=0.008,
        limit_pct=0.02,
        breakeven_after=6,
        cooldown_candles=3,
    ),
    'aggressive': BacktestRules(
        min_confidence=50,
        stop_pct=0.012,
        limit_pct=0.03,
        breakeven_after=4,
        cooldown_candles=1,
    ),
}


@dataclass
class BacktestConfig(_DictMixin):
    """Backtest configuration."""
    initial_balance: float = 1000.0
    start_index: int = 50
    end_index: Optional[int] = None  # None = last candle
    preset: str = 'default'

    # Feed the regime detector during replay
    use_regime: bool = True

    # Overrides the preset entry threshold when set
    min_confidence: Optional[float] = None

    def validate(self):
        if self.initial_balance <= 0:
            raise ConfigError("initial_balance must be positive")
        if self.start_index < 0:
            raise ConfigError("start_index must be >= 0")
        if self.preset not in BACKTEST_PRESETS:
            raise ConfigError(
                f"Unknown preset '{self.preset}', expected one of {sorted(BACKTEST_PRESETS)}"
            )

    @property
    def rules(self) -> BacktestRules:
        self.validate()
        rules = BACKTEST_PRESETS[self.preset]
        if self.min_confidence is not None:
            rules = replace(rules, min_confidence=self.min_confidence)
        return rules


@dataclass
class RiskConfig(_DictMixin):
    """Position sizing configuration."""
    base_risk_pct: float = 0.01  # 1% of the account per trade
    atr_period: int = 14
    atr_multiplier: float = 2.5
    min_risk_reward: float = 2.0
    max_position_pct: float = 0.05

    # Fallback when ATR is unavailable
    fallback_stop_pct: float = 0.02
    fallback_risk_pct: float = 0.005

    def validate(self):
        if not 0 < self.base_risk_pct < 1:
            raise ConfigError("base_risk_pct must be between 0 and 1")


@dataclass
class LoggingConfig(_DictMixin):
    """Logging configuration."""
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


@dataclass
class EngineConfig:
    """Master configuration."""
    regime: RegimeConfig = field(default_factory=RegimeConfig)
    signals: SignalConfig = field(default_factory=SignalConfig)
    backtest: BacktestConfig = field(default_factory=BacktestConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Candles kept by the live pipeline
    window_size: int = 500

    def save(self, filepath: str):
        """Save configuration to JSON file."""
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, filepath: str) -> 'EngineConfig':
        """Load configuration from JSON file."""
        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        return {
            'regime': self.regime.to_dict(),
            'signals': self.signals.to_dict(),
            'backtest': self.backtest.to_dict(),
            'risk': self.risk.to_dict(),
            'logging': self.logging.to_dict(),
            'window_size': self.window_size,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'EngineConfig':
        data = data or {}
        config = cls(
            regime=RegimeConfig.from_dict(data.get('regime')),
            signals=SignalConfig.from_dict(data.get('signals')),
            backtest=BacktestConfig.from_dict(data.get('backtest')),
            risk=RiskConfig.from_dict(data.get('risk')),
            logging=LoggingConfig.from_dict(data.get('logging')),
            window_size=int(data.get('window_size', 500)),
        )
        if config.window_size < 2:
            raise ConfigError("window_size must be >= 2")
        return config

    @classmethod
    def resolve(cls, config=None) -> 'EngineConfig':
        """Engine config from None (defaults), a nested plain dict or an instance."""
        if config is None:
            return cls()
        if isinstance(config, Mapping):
            return cls.from_dict(config)
        return config


def setup_logging(config: Optional[LoggingConfig] = None):
    """Configure root logging the way the rest of the system expects."""
    config = config or LoggingConfig()
    level = getattr(logging, str(config.log_level).upper(), None)
    if not isinstance(level, int):
        raise ConfigError(f"Unknown log level '{config.log_level}'")

    handlers = [logging.StreamHandler()]
    if config.log_file:
        directory = os.path.dirname(config.log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(level=level, format=config.log_format, handlers=handlers)

