"""
CONFIG ENGINE
Load, validate, and expose controller configuration

RESPONSIBILITIES:
- Load YAML configuration files (strategy.yml, chain.yml)
- Validate every tunable against hard bounds
- Expose read-only typed objects

RULES:
❌ No silent clamping of out-of-range values
✅ Fail fast on invalid config (ConfigOutOfBounds)
✅ Deterministic output
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from treasury.domain.errors import ConfigOutOfBounds


# Hard bounds (inclusive). Configuration outside these ranges is rejected.
HEARTBEAT_BOUNDS = (60, 172_800)
TWAP_LOOKBACK_BOUNDS = (60, 86_400)
DEVIATION_BPS_BOUNDS = (1, 5_000)
TARGET_BPS_BOUNDS = (1, 9_999)
THRESHOLD_BPS_BOUNDS = (10, 5_000)
MIN_INTERVAL_BOUNDS = (3_600, 604_800)
WINDOW_BOUNDS = (3_600, 604_800)
TRIP_THRESHOLD_BOUNDS = (1, 10)
TRIP_DURATION_BOUNDS = (300, 604_800)
RECOVERY_WINDOW_BOUNDS = (3_600, 2_592_000)
RECOVERY_STEPS_BOUNDS = (1, 48)
SLIPPAGE_BPS_LIMITS = (1, 5_000)
FEE_BPS_LIMITS = (1, 1_000)
ATTEMPT_LOG_BOUNDS = (1, 10_000)


@dataclass(frozen=True)
class AssetSpec:
    """A rebalanced asset and the reference price it is valued at"""
    symbol: str
    decimals: int
    price_asset: str


@dataclass(frozen=True)
class TwapReference:
    """Reference pool used to cross-check an oracle price"""
    pool: str
    lookback_seconds: int
    max_deviation_bps: int
    token0_decimals: int
    token1_decimals: int
    invert: bool = False
    quote_asset: Optional[str] = None


@dataclass(frozen=True)
class OraclePolicy:
    """Validation policy for one reference asset"""
    asset: str
    heartbeat_seconds: int
    min_price: Decimal
    max_price: Decimal
    primary_feed: str
    fallback_feed: Optional[str]
    twap: Optional[TwapReference] = None


@dataclass(frozen=True)
class RebalanceSettings:
    target_asset_a_bps: int
    threshold_bps: int
    min_interval_seconds: int
    min_position_size: Decimal
    max_position_size: Decimal


@dataclass(frozen=True)
class RateLimitSettings:
    daily_limit: Decimal
    window_seconds: int


@dataclass(frozen=True)
class CircuitBreakerSettings:
    trip_threshold: int
    trip_duration_seconds: int
    recovery_floor: Decimal
    recovery_window_seconds: int
    recovery_steps: int


@dataclass(frozen=True)
class SwapSettings:
    router: str
    max_slippage_bps: int
    slippage_bounds: Tuple[int, int]
    swap_fee_bps: int
    fee_bounds: Tuple[int, int]


@dataclass(frozen=True)
class VaultSettings:
    deposit_cap: Decimal
    deposit_cap_bounds: Tuple[Decimal, Decimal]
    attempt_log_size: int


@dataclass(frozen=True)
class StrategyConfig:
    """Complete, validated controller configuration"""
    name: str
    version: str
    asset_a: AssetSpec
    asset_b: AssetSpec
    oracles: List[OraclePolicy]
    rebalance: RebalanceSettings
    rate_limit: RateLimitSettings
    circuit_breaker: CircuitBreakerSettings
    swap: SwapSettings
    vault: VaultSettings
    chain: Dict[str, Any] = field(default_factory=dict)

    @property
    def reference_assets(self) -> List[str]:
        return [policy.asset for policy in self.oracles]

    def oracle_policy(self, asset: str) -> OraclePolicy:
        for policy in self.oracles:
            if policy.asset == asset:
                return policy
        raise ValueError(f"No oracle policy for asset: {asset}")


# ----------------------------------------------------------------------
# Parsing helpers
# ----------------------------------------------------------------------

def _decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError):
        raise ConfigOutOfBounds(f"{name} is not a number: {value!r}")


def _require_range(value, bounds, name: str):
    low, high = bounds
    if value < low or value > high:
        raise ConfigOutOfBounds(f"{name}={value} outside [{low}, {high}]")
    return value


def _require_positive(value: Decimal, name: str) -> Decimal:
    if value <= 0:
        raise ConfigOutOfBounds(f"{name} must be positive (got {value})")
    return value


def _required(data: Dict[str, Any], key: str, section: str) -> Any:
    if not isinstance(data, dict) or data.get(key) is None:
        raise ConfigOutOfBounds(f"{section}.{key} is required")
    return data[key]


def _parse_bounds(raw: Any, limits: Tuple[int, int], name: str) -> Tuple[int, int]:
    if not isinstance(raw, (list, tuple)) or len(raw) != 2:
        raise ConfigOutOfBounds(f"{name} must be a [min, max] pair")
    low, high = int(raw[0]), int(raw[1])
    _require_range(low, limits, f"{name}.min")
    _require_range(high, limits, f"{name}.max")
    if low > high:
        raise ConfigOutOfBounds(f"{name} min {low} > max {high}")
    return low, high


def _parse_asset(data: Dict[str, Any], name: str) -> AssetSpec:
    return AssetSpec(
        symbol=_required(data, "symbol", name),
        decimals=int(data.get("decimals", 8)),
        price_asset=_required(data, "price_asset", name),
    )


def _parse_twap(data: Optional[Dict[str, Any]], asset: str) -> Optional[TwapReference]:
    if not data:
        return None
    return TwapReference(
        pool=_required(data, "pool", f"{asset}.twap"),
        lookback_seconds=_require_range(
            int(data.get("lookback_seconds", 1800)), TWAP_LOOKBACK_BOUNDS, f"{asset}.twap.lookback_seconds"
        ),
        max_deviation_bps=_require_range(
            int(_required(data, "max_deviation_bps", f"{asset}.twap")), DEVIATION_BPS_BOUNDS, f"{asset}.twap.max_deviation_bps"
        ),
        token0_decimals=int(_required(data, "token0_decimals", f"{asset}.twap")),
        token1_decimals=int(_required(data, "token1_decimals", f"{asset}.twap")),
        invert=bool(data.get("invert", False)),
        quote_asset=data.get("quote_asset"),
    )


def _parse_oracle(data: Dict[str, Any]) -> OraclePolicy:
    asset = _required(data, "asset", "oracles")
    min_price = _require_positive(
        _decimal(_required(data, "min_price", asset), f"{asset}.min_price"), f"{asset}.min_price"
    )
    max_price = _decimal(_required(data, "max_price", asset), f"{asset}.max_price")
    if max_price <= min_price:
        raise ConfigOutOfBounds(f"{asset}: max_price must exceed min_price")
    return OraclePolicy(
        asset=asset,
        heartbeat_seconds=_require_range(
            int(_required(data, "heartbeat_seconds", asset)), HEARTBEAT_BOUNDS, f"{asset}.heartbeat_seconds"
        ),
        min_price=min_price,
        max_price=max_price,
        primary_feed=_required(data, "primary_feed", asset),
        fallback_feed=data.get("fallback_feed"),
        twap=_parse_twap(data.get("twap"), asset),
    )


def parse_strategy_config(data: Dict[str, Any], chain: Optional[Dict[str, Any]] = None) -> StrategyConfig:
    """Build a validated StrategyConfig from the strategy.yml mapping."""
    strategy = data.get("strategy", {})
    assets = data.get("assets", {})
    asset_a = _parse_asset(assets.get("asset_a"), "assets.asset_a")
    asset_b = _parse_asset(assets.get("asset_b"), "assets.asset_b")
    if asset_a.symbol == asset_b.symbol:
        raise ConfigOutOfBounds("asset_a and asset_b must differ")

    oracles = [_parse_oracle(o) for o in data.get("oracles", [])]
    known = {o.asset for o in oracles}
    for spec in (asset_a, asset_b):
        if spec.price_asset not in known:
            raise ConfigOutOfBounds(f"No oracle configured for price asset {spec.price_asset}")
    for idx, policy in enumerate(oracles):
        quote = policy.twap.quote_asset if policy.twap else None
        if quote and quote not in [o.asset for o in oracles[:idx]]:
            raise ConfigOutOfBounds(f"{policy.asset}.twap.quote_asset {quote} must be validated earlier")

    reb = _required(data, "rebalance", "strategy")
    min_pos = _require_positive(
        _decimal(_required(reb, "min_position_size", "rebalance"), "min_position_size"), "min_position_size"
    )
    max_pos = _decimal(_required(reb, "max_position_size", "rebalance"), "max_position_size")
    if max_pos <= min_pos:
        raise ConfigOutOfBounds("max_position_size must exceed min_position_size")
    rebalance = RebalanceSettings(
        target_asset_a_bps=_require_range(
            int(reb.get("target_asset_a_bps", 5000)), TARGET_BPS_BOUNDS, "target_asset_a_bps"
        ),
        threshold_bps=_require_range(int(_required(reb, "threshold_bps", "rebalance")), THRESHOLD_BPS_BOUNDS, "threshold_bps"),
        min_interval_seconds=_require_range(
            int(_required(reb, "min_interval_seconds", "rebalance")), MIN_INTERVAL_BOUNDS, "min_interval_seconds"
        ),
        min_position_size=min_pos,
        max_position_size=max_pos,
    )

    rl = _required(data, "rate_limit", "strategy")
    rate_limit = RateLimitSettings(
        daily_limit=_require_positive(_decimal(_required(rl, "daily_limit", "rate_limit"), "daily_limit"), "daily_limit"),
        window_seconds=_require_range(int(rl.get("window_seconds", 86_400)), WINDOW_BOUNDS, "window_seconds"),
    )

    cb = _required(data, "circuit_breaker", "strategy")
    floor = _require_positive(
        _decimal(_required(cb, "recovery_floor", "circuit_breaker"), "recovery_floor"), "recovery_floor"
    )
    if floor > rate_limit.daily_limit:
        raise ConfigOutOfBounds("recovery_floor cannot exceed daily_limit")
    breaker = CircuitBreakerSettings(
        trip_threshold=_require_range(int(_required(cb, "trip_threshold", "circuit_breaker")), TRIP_THRESHOLD_BOUNDS, "trip_threshold"),
        trip_duration_seconds=_require_range(
            int(_required(cb, "trip_duration_seconds", "circuit_breaker")), TRIP_DURATION_BOUNDS, "trip_duration_seconds"
        ),
        recovery_floor=floor,
        recovery_window_seconds=_require_range(
            int(_required(cb, "recovery_window_seconds", "circuit_breaker")), RECOVERY_WINDOW_BOUNDS, "recovery_window_seconds"
        ),
        recovery_steps=_require_range(int(_required(cb, "recovery_steps", "circuit_breaker")), RECOVERY_STEPS_BOUNDS, "recovery_steps"),
    )

    sw = _required(data, "swap", "strategy")
    slippage_bounds = _parse_bounds(_required(sw, "slippage_bounds", "swap"), SLIPPAGE_BPS_LIMITS, "slippage_bounds")
    fee_bounds = _parse_bounds(_required(sw, "fee_bounds", "swap"), FEE_BPS_LIMITS, "fee_bounds")
    swap = SwapSettings(
        router=sw.get("router", "primary"),
        max_slippage_bps=_require_range(int(_required(sw, "max_slippage_bps", "swap")), slippage_bounds, "max_slippage_bps"),
        slippage_bounds=slippage_bounds,
        swap_fee_bps=_require_range(int(_required(sw, "swap_fee_bps", "swap")), fee_bounds, "swap_fee_bps"),
        fee_bounds=fee_bounds,
    )

    vt = data.get("vault", {})
    cap_bounds_raw = vt.get("deposit_cap_bounds", ["1", "1000"])
    cap_bounds = (_decimal(cap_bounds_raw[0], "deposit_cap_bounds.min"), _decimal(cap_bounds_raw[1], "deposit_cap_bounds.max"))
    vault = VaultSettings(
        deposit_cap=_require_range(_decimal(vt.get("deposit_cap", "100"), "deposit_cap"), cap_bounds, "deposit_cap"),
        deposit_cap_bounds=cap_bounds,
        attempt_log_size=_require_range(int(vt.get("attempt_log_size", 50)), ATTEMPT_LOG_BOUNDS, "attempt_log_size"),
    )

    return StrategyConfig(
        name=strategy.get("name", "treasury"),
        version=str(strategy.get("version", "dev")),
        asset_a=asset_a,
        asset_b=asset_b,
        oracles=oracles,
        rebalance=rebalance,
        rate_limit=rate_limit,
        circuit_breaker=breaker,
        swap=swap,
        vault=vault,
        chain=chain or {},
    )


class ConfigEngine:
    """
    Configuration Engine
    Single source of truth for controller configuration
    """

    def __init__(self, config_dir: Path):
        """Initialize with config directory"""
        self.config_dir = Path(config_dir)
        self._strategy: Optional[StrategyConfig] = None
        self._chain_config: Optional[Dict] = None

    def load_all(self) -> None:
        """Load all configuration files"""
        self._load_chain_config()
        self._load_strategy()

    def _read_yaml(self, name: str) -> Dict:
        path = self.config_dir / name
        if not path.exists():
            raise FileNotFoundError(f"Config not found: {path}")
        with open(path, "r") as f:
            return yaml.safe_load(f) or {}

    def _load_chain_config(self) -> None:
        """Load adapter wiring from chain.yml"""
        self._chain_config = self._read_yaml("chain.yml")

    def _load_strategy(self) -> None:
        """Load and validate strategy.yml"""
        self._strategy = parse_strategy_config(self._read_yaml("strategy.yml"), self._chain_config)

    @property
    def strategy(self) -> StrategyConfig:
        if self._strategy is None:
            raise RuntimeError("Config not loaded. Call load_all() first")
        return self._strategy

    @property
    def strategy_version(self) -> str:
        return self.strategy.version

    def get_chain_setting(self, *keys) -> Any:
        """Get chain adapter setting by nested keys"""
        if self._chain_config is None:
            raise RuntimeError("Config not loaded. Call load_all() first")

        value = self._chain_config
        for key in keys:
            value = value[key]
        return value
