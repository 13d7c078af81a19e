from enum import Enum, IntEnum
import numpy as np

VERSION = "1.0.0"

class Species(IntEnum):
    """Column position of each species in a rate vector or stream row."""
    NA = 0
    K = 1
    HCO3 = 2
    UREA = 3
    CL = 4
    GLUCOSE = 5
    WATER = 6

SOLUTES = (Species.NA, Species.K, Species.HCO3, Species.UREA, Species.CL, Species.GLUCOSE)

class Segment(IntEnum):
    """Row position of each tubule segment. Order is the physiological sequence."""
    PCT = 0
    DESCENDING_LIMB = 1
    ASCENDING_LIMB = 2
    DCT = 3
    CORTICAL_DUCT = 4
    MEDULLARY_DUCT = 5

class ScenarioType(Enum):
    HEALTHY = "healthy"
    MILD_RENAL_INSUFFICIENCY = "mild_renal_insufficiency"  # High K, low HCO3, azotemia
    HYPOKALEMIA_ALKALOSIS = "hypokalemia_alkalosis"
    HYPERNATREMIA = "hypernatremia"
    HYPONATREMIA = "hyponatremia"

SPECIES_LABELS = ["Na+", "K+", "HCO3-", "Urea", "Cl-", "Glucose", "H2O"]
STREAM_LABELS = [
    "1 (PCT In)", "2 (Desc In)", "3 (Asc In)", "4 (DCT In)",
    "5 (Cort. CD In)", "6 (Med. CD In)", "7 (Final Urine)"
]

NUM_SPECIES = len(Species)
NUM_SEGMENTS = len(Segment)
NUM_STREAMS = NUM_SEGMENTS + 1

class PHYSICS_CONSTANTS:
    WATER_MOLAR_MASS_G_MOL = 18.0
    WATER_DENSITY_G_L = 1000.0
    MMOL_PER_MOL = 1000.0
    HOURS_PER_DAY = 24.0

    # Controller GFR (mL/min) divided by this gives the engine flow scale
    GFR_ENGINE_DIVISOR = 60.0

    # Added to stream volume so a dry stream divides cleanly
    VOLUME_EPSILON_L = 1e-9

    # Stream 4 (ascending limb output) carries the macula densa signal
    TGF_SENSING_STREAM = 3

class CONTROL_CONSTANTS:
    NA_DEAD_BAND = 0.5    # mmol/L
    K_DEAD_BAND = 0.1     # mmol/L
    HCO3_DEAD_BAND = 0.5  # mmol/L

    RATE_MIN = 0.0
    RATE_MAX = 0.99
    SECRETION_RATE_MIN = -5.0  # Collecting duct K+ only

    TGF_ITERATIONS = 5
    GFR_MIN_ML_MIN = 90.0
    GFR_MAX_ML_MIN = 120.0

    # Below this NaCl delivery (mol/hr) the TGF update is skipped
    DELIVERY_FLOOR = 1e-12

    # Mass balance never writes a concentration below zero or body water below this (L)
    PLASMA_FLOOR_MMOL_L = 0.0
    BODY_WATER_FLOOR_L = 1e-3

    BASELINE_GFR_ML_MIN = 105.0
    TOTAL_BODY_WATER_L = 42.0
    LEARNING_RATE_NA = 0.01
    LEARNING_RATE_K = 0.05     # K+ regulation is more sensitive
    LEARNING_RATE_HCO3 = 0.01

# Collecting-duct cells that are allowed to run K+ below zero (secretion)
SECRETING_CELLS = ((Segment.CORTICAL_DUCT, Species.K), (Segment.MEDULLARY_DUCT, Species.K))

class RATE_LIBRARY:
    """
    Reabsorption fractions per segment.
    Columns: Na, K, HCO3, Urea, Cl, Glucose, Water.
    """
    BASELINE = (
        (0.65, 0.5707,  0.85,  0.25,   0.60,  1.0, 0.66),   # PCT
        (0.0,  0.0,     0.0,   0.075,  0.0,   0.0, 0.15),   # Descending limb
        (0.25, 0.1756,  0.0,   0.075,  0.25,  0.0, 0.0),    # Thick ascending limb
        (0.05, 0.02195, 0.085, 0.0,    0.075, 0.0, 0.0),    # DCT
        (0.02, 0.0439,  0.045, 0.0125, 0.035, 0.0, 0.075),  # Cortical CD
        (0.02, 0.03951, 0.005, 0.1125, 0.015, 0.0, 0.04),   # Medullary CD
    )

    @staticmethod
    def baseline() -> np.ndarray:
        return np.array(RATE_LIBRARY.BASELINE, dtype=float)

class SETPOINTS:
    """Healthy plasma concentrations (mmol/L)."""
    NA = 140.0
    K = 4.25      # average of 3.5-5.0
    HCO3 = 24.0   # average of 22-26
    UREA = 4.75   # average of 2.5-7.0
    CL = 101.0    # average of 96-106
    GLUCOSE = 5.0
