"""
NephroFlow: Data Dictionary & Variable Definitions
==================================================
This module defines the state space of the nephron model.
It includes Inputs (plasma, rates, configuration), Engine Outputs (stream
tables) and Controller Outputs (daily history, safety flags).

NO TRANSPORT LOGIC is implemented here. Only the containers, their
structural invariants and the exceptions raised at the boundaries.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from datetime import datetime
import numpy as np

from constants import (
    VERSION,
    Species,
    Segment,
    NUM_SPECIES,
    NUM_SEGMENTS,
    RATE_LIBRARY,
    SETPOINTS,
    CONTROL_CONSTANTS,
    PHYSICS_CONSTANTS,
)

class InvalidInputError(ValueError):
    """Raised when the engine receives a negative or non-finite GFR, concentration or rate."""
    pass

class DataTypeError(TypeError):
    """Raised when inputs are wrong python types (str instead of float)."""
    pass

# --- 1. INPUT LAYER ---

@dataclass
class PlasmaConcentrations:
    """Plasma solute concentrations in mmol/L. Water is implied."""
    na: float
    k: float
    hco3: float
    urea: float
    cl: float
    glucose: float = 0.0  # Optional: 0.0 means glucose is not filtered

    def __post_init__(self):
        for name in ('na', 'k', 'hco3', 'urea', 'cl', 'glucose'):
            val = getattr(self, name)
            if isinstance(val, bool) or not isinstance(val, (int, float, np.floating, np.integer)):
                raise DataTypeError(f"Field '{name}' must be numeric, got {type(val)}")
            setattr(self, name, float(val))

    @classmethod
    def healthy(cls) -> 'PlasmaConcentrations':
        return cls(
            na=SETPOINTS.NA, k=SETPOINTS.K, hco3=SETPOINTS.HCO3,
            urea=SETPOINTS.UREA, cl=SETPOINTS.CL, glucose=SETPOINTS.GLUCOSE
        )

    def as_array(self) -> np.ndarray:
        """Concentrations in Species order (Na, K, HCO3, Urea, Cl, Glucose)."""
        return np.array([self.na, self.k, self.hco3, self.urea, self.cl, self.glucose], dtype=float)

    def to_dict(self) -> dict:
        return {
            "na": self.na, "k": self.k, "hco3": self.hco3,
            "urea": self.urea, "cl": self.cl, "glucose": self.glucose
        }

@dataclass(eq=False)
class ReabsorptionRates:
    """
    One 7-species fraction vector per segment (6 x 7 table).
    Rows follow Segment order, columns follow Species order.
    Negative values model net secretion.
    """
    table: np.ndarray

    def __post_init__(self):
        try:
            table = np.array(self.table, dtype=float)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"Rate table is not numeric: {e}")
        if table.shape != (NUM_SEGMENTS, NUM_SPECIES):
            raise InvalidInputError(
                f"Rate table must be {NUM_SEGMENTS}x{NUM_SPECIES}, got {table.shape}"
            )
        # Own the buffer so callers cannot mutate it behind our back
        self.table = table

    @classmethod
    def baseline(cls) -> 'ReabsorptionRates':
        return cls(RATE_LIBRARY.baseline())

    def get(self, segment: Segment, species: Species) -> float:
        return float(self.table[segment, species])

    def remaining(self) -> np.ndarray:
        """Fraction of each species that survives each segment."""
        return 1.0 - self.table

    def copy(self) -> 'ReabsorptionRates':
        return ReabsorptionRates(self.table.copy())

    def equals(self, other: 'ReabsorptionRates') -> bool:
        return bool(np.array_equal(self.table, other.table))

# --- 2. ENGINE OUTPUT LAYER ---

@dataclass(frozen=True, eq=False)
class Stream:
    """Molar-flow state (mol/hr) of tubular fluid at one point of the nephron."""
    species: np.ndarray

    @property
    def total(self) -> float:
        # Derived, never stored: total always equals the species sum
        return float(np.sum(self.species))

    def flow(self, species: Species) -> float:
        return float(self.species[species])

    @property
    def volume_l(self) -> float:
        return float(self.species[Species.WATER]) * PHYSICS_CONSTANTS.WATER_MOLAR_MASS_G_MOL / PHYSICS_CONSTANTS.WATER_DENSITY_G_L

@dataclass(eq=False)
class TransportResult:
    """
    streams: 7 x 8 (column 0 = total, columns 1..7 = species), mol/hr
    concentrations: 7 x 6 (solutes only), mol/L
    """
    streams: np.ndarray
    concentrations: np.ndarray
    gfr: float = 0.0

    def stream(self, index: int) -> Stream:
        """Zero-based stream access. Stream 0 enters the PCT, stream 6 is final urine."""
        return Stream(species=self.streams[index, 1:].copy())

    @property
    def final_urine(self) -> Stream:
        return self.stream(self.streams.shape[0] - 1)

    @property
    def species_flows(self) -> np.ndarray:
        return self.streams[:, 1:]

# --- 3. CONTROLLER CONFIGURATION ---

@dataclass(eq=False)
class ControllerConfig:
    """
    Everything the homeostatic controller needs besides the initial plasma.
    Defaults reproduce the reference multi-biomarker run.
    """
    setpoints: PlasmaConcentrations = field(default_factory=PlasmaConcentrations.healthy)
    baseline_gfr_ml_min: float = CONTROL_CONSTANTS.BASELINE_GFR_ML_MIN
    baseline_rates: ReabsorptionRates = field(default_factory=ReabsorptionRates.baseline)

    learning_rate_na: float = CONTROL_CONSTANTS.LEARNING_RATE_NA
    learning_rate_k: float = CONTROL_CONSTANTS.LEARNING_RATE_K
    learning_rate_hco3: float = CONTROL_CONSTANTS.LEARNING_RATE_HCO3

    total_body_water_l: float = CONTROL_CONSTANTS.TOTAL_BODY_WATER_L

    # TGF inner solve
    tgf_iterations: int = CONTROL_CONSTANTS.TGF_ITERATIONS
    gfr_min_ml_min: float = CONTROL_CONSTANTS.GFR_MIN_ML_MIN
    gfr_max_ml_min: float = CONTROL_CONSTANTS.GFR_MAX_ML_MIN

    def __post_init__(self):
        if not isinstance(self.baseline_rates, ReabsorptionRates):
            self.baseline_rates = ReabsorptionRates(self.baseline_rates)

        if not np.isfinite(self.total_body_water_l) or self.total_body_water_l <= 0:
            raise InvalidInputError(f"Invalid total body water: {self.total_body_water_l} L")
        if not np.isfinite(self.baseline_gfr_ml_min) or self.baseline_gfr_ml_min <= 0:
            raise InvalidInputError(f"Invalid baseline GFR: {self.baseline_gfr_ml_min} mL/min")
        for name in ('learning_rate_na', 'learning_rate_k', 'learning_rate_hco3'):
            val = getattr(self, name)
            if not np.isfinite(val) or val < 0:
                raise InvalidInputError(f"Learning rate '{name}' must be >= 0, got {val}")
        if not isinstance(self.tgf_iterations, int) or self.tgf_iterations < 1:
            raise InvalidInputError(f"tgf_iterations must be a positive integer, got {self.tgf_iterations}")
        if not (self.gfr_min_ml_min < self.gfr_max_ml_min):
            raise InvalidInputError("gfr_min_ml_min must be less than gfr_max_ml_min")

# --- 4. CONTROLLER OUTPUT LAYER ---

@dataclass(frozen=True)
class DailyRecord:
    """One simulated day. Written once, never modified."""
    day: int
    plasma_na: float
    plasma_k: float
    plasma_hco3: float
    reab_na: float    # DCT Na+
    reab_h2o: float   # Cortical CD water
    reab_k: float     # Cortical CD K+ (negative = secretion)
    gfr_ml_min: float
    tgf_guarded: bool = False  # True if a degenerate NaCl delivery skipped a TGF update
    plasma_floored: bool = False  # True if the mass balance drove Na+, K+ or HCO3- (or body water) below its floor

@dataclass
class ControllerHistory:
    """
    Append-only audit trail of a controller run.
    Entry 0 is the initial plasma; each day appends one DailyRecord.
    """
    initial_plasma: PlasmaConcentrations
    _records: List[DailyRecord] = field(default_factory=list, init=False, repr=False)
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    model_version: str = VERSION

    def append(self, record: DailyRecord):
        expected_day = len(self._records) + 1
        if record.day != expected_day:
            raise ValueError(f"History is day-indexed: expected day {expected_day}, got {record.day}")
        self._records.append(record)

    @property
    def records(self) -> Tuple[DailyRecord, ...]:
        """Read-only view. Use append() to add a day."""
        return tuple(self._records)

    @property
    def num_days(self) -> int:
        return len(self.records)

    @property
    def days(self) -> List[int]:
        return list(range(len(self.records) + 1))

    @property
    def plasma_na(self) -> List[float]:
        return [self.initial_plasma.na] + [r.plasma_na for r in self.records]

    @property
    def plasma_k(self) -> List[float]:
        return [self.initial_plasma.k] + [r.plasma_k for r in self.records]

    @property
    def plasma_hco3(self) -> List[float]:
        return [self.initial_plasma.hco3] + [r.plasma_hco3 for r in self.records]

    @property
    def reab_na(self) -> List[float]:
        return [r.reab_na for r in self.records]

    @property
    def reab_h2o(self) -> List[float]:
        return [r.reab_h2o for r in self.records]

    @property
    def reab_k(self) -> List[float]:
        return [r.reab_k for r in self.records]

    @property
    def gfr_ml_min(self) -> List[float]:
        return [r.gfr_ml_min for r in self.records]

    @property
    def guarded_days(self) -> List[int]:
        return [r.day for r in self.records if r.tgf_guarded]

    @property
    def floored_days(self) -> List[int]:
        return [r.day for r in self.records if r.plasma_floored]

    def to_dict(self) -> dict:
        return {
            "days": self.days,
            "plasma_na": self.plasma_na,
            "plasma_k": self.plasma_k,
            "plasma_hco3": self.plasma_hco3,
            "reab_na": self.reab_na,
            "reab_h2o": self.reab_h2o,
            "reab_k": self.reab_k,
            "gfr_ml_min": self.gfr_ml_min,
            "guarded_days": self.guarded_days,
            "floored_days": self.floored_days,
        }

@dataclass
class SafetyAlerts:
    """
    Boolean flags for the plasma state at the end of a run.
    """
    risk_hyperkalemia: bool = False   # K > 5.5
    risk_hypokalemia: bool = False    # K < 3.5
    risk_acidosis: bool = False       # HCO3 < 22
    risk_alkalosis: bool = False      # HCO3 > 26
    risk_hypernatremia: bool = False  # Na > 145
    risk_hyponatremia: bool = False   # Na < 135

    # Model-level warnings
    tgf_degenerate_warning: bool = False  # TGF guard fired on at least one day
    plasma_floor_warning: bool = False    # Mass balance floored a concentration on at least one day
    non_finite_warning: bool = False

    messages: List[str] = field(default_factory=list)

@dataclass
class Scenario:
    """A named starting state for the controller (harness input)."""
    label: str
    initial_plasma: PlasmaConcentrations
    num_days: int = 20
    description: Optional[str] = None
