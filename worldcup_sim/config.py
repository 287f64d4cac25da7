import json
import logging
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union


logger = logging.getLogger(__name__)

ROOT_DIR = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = ROOT_DIR / "config" / "engine.json"

DEFAULT_K_FACTOR = 5.0
DEFAULT_HOME_ADVANTAGE = 3.0
DEFAULT_SKILL_MIN = 30
DEFAULT_SKILL_MAX = 100

K_FACTOR_BOUNDS = (1.0, 50.0)
HOME_ADVANTAGE_BOUNDS = (0.0, 10.0)
SKILL_MIN_BOUNDS = (0, 99)
SKILL_MAX_BOUNDS = (1, 100)


def _clamp(value, lo, hi):
    return max(lo, min(hi, value))


@dataclass(frozen=True)
class EngineConfig:
    """
    k_factor:       Elo-style step size for rating changes.
    home_advantage: Skill points added to the home side at non-neutral venues.
    skill_min:      Lowest rating a team can hold.
    skill_max:      Highest rating a team can hold.
    """

    k_factor: float = DEFAULT_K_FACTOR
    home_advantage: float = DEFAULT_HOME_ADVANTAGE
    skill_min: int = DEFAULT_SKILL_MIN
    skill_max: int = DEFAULT_SKILL_MAX

    def __post_init__(self):
        lo, hi = K_FACTOR_BOUNDS
        if not lo <= self.k_factor <= hi:
            raise ValueError(f"k_factor must be in [{lo}, {hi}], got {self.k_factor}")
        lo, hi = HOME_ADVANTAGE_BOUNDS
        if not lo <= self.home_advantage <= hi:
            raise ValueError(
                f"home_advantage must be in [{lo}, {hi}], got {self.home_advantage}"
            )
        lo, hi = SKILL_MIN_BOUNDS
        if not lo <= self.skill_min <= hi:
            raise ValueError(f"skill_min must be in [{lo}, {hi}], got {self.skill_min}")
        lo, hi = SKILL_MAX_BOUNDS
        if not lo <= self.skill_max <= hi:
            raise ValueError(f"skill_max must be in [{lo}, {hi}], got {self.skill_max}")
        if self.skill_min >= self.skill_max:
            raise ValueError(
                f"skill_min must be below skill_max, got {self.skill_min} >= {self.skill_max}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        try:
            values = dict(
                k_factor=float(data.get("k_factor", DEFAULT_K_FACTOR)),
                home_advantage=float(data.get("home_advantage", DEFAULT_HOME_ADVANTAGE)),
                skill_min=int(data.get("skill_min", DEFAULT_SKILL_MIN)),
                skill_max=int(data.get("skill_max", DEFAULT_SKILL_MAX)),
            )
        except (TypeError, ValueError) as exc:
            raise ValueError(f"invalid engine config value: {exc}") from exc
        return cls(**values)


class ConfigStore:
    """
    Holder for the user-adjustable engine configuration.

    Updates clamp their inputs and swap in a new EngineConfig; the engine only
    ever sees the instance it was handed, so a change takes effect on the next
    simulation call.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        path: Optional[Union[str, Path]] = None,
    ):
        self._config = config or EngineConfig()
        self.path = Path(path) if path else None

    @property
    def config(self) -> EngineConfig:
        return self._config

    def update_k_factor(self, value: float) -> EngineConfig:
        k = _clamp(float(value), *K_FACTOR_BOUNDS)
        self._config = replace(self._config, k_factor=k)
        logger.debug("k_factor set to %s", k)
        return self._config

    def update_home_advantage(self, value: float) -> EngineConfig:
        hga = _clamp(float(value), *HOME_ADVANTAGE_BOUNDS)
        self._config = replace(self._config, home_advantage=hga)
        logger.debug("home_advantage set to %s", hga)
        return self._config

    def update_skill_limits(self, skill_min: int, skill_max: int) -> EngineConfig:
        lo = int(_clamp(int(skill_min), *SKILL_MIN_BOUNDS))
        hi = int(_clamp(int(skill_max), *SKILL_MAX_BOUNDS))
        if lo >= hi:
            raise ValueError(f"skill limits rejected: min {lo} must be below max {hi}")
        self._config = replace(self._config, skill_min=lo, skill_max=hi)
        logger.debug("skill limits set to [%s, %s]", lo, hi)
        return self._config

    def reset_to_defaults(self) -> EngineConfig:
        self._config = EngineConfig()
        return self._config

    def save(self, path: Optional[Union[str, Path]] = None) -> Path:
        target = Path(path) if path else (self.path or DEFAULT_CONFIG_PATH)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w") as f:
            json.dump(self._config.to_dict(), f, indent=2)
        self.path = target
        return target

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "ConfigStore":
        source = Path(path) if path else DEFAULT_CONFIG_PATH
        if not source.exists():
            logger.info("no engine config at %s, using defaults", source)
            return cls(path=source)
        with open(source, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"engine config in {source} must be a JSON object")
        return cls(EngineConfig.from_dict(data), path=source)
