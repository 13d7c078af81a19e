# safety.py
import math
import numpy as np

from constants import SOLUTES, SPECIES_LABELS
from models import (
    PlasmaConcentrations,
    ReabsorptionRates,
    ControllerHistory,
    SafetyAlerts,
    InvalidInputError,
)

class InputGuard:
    """
    Boundary checks for the transport engine.
    A bad GFR or concentration is a configuration defect upstream, so we fail fast.
    """
    @staticmethod
    def check_gfr(gfr: float) -> float:
        if isinstance(gfr, bool) or not isinstance(gfr, (int, float, np.floating, np.integer)):
            raise InvalidInputError(f"GFR must be numeric, got {type(gfr)}")
        gfr = float(gfr)
        if not math.isfinite(gfr):
            raise InvalidInputError(f"GFR must be finite, got {gfr}")
        # Zero is allowed: it yields empty streams, not an error
        if gfr < 0:
            raise InvalidInputError(f"GFR cannot be negative, got {gfr}")
        return gfr

    @staticmethod
    def check_plasma(plasma: PlasmaConcentrations) -> np.ndarray:
        if not isinstance(plasma, PlasmaConcentrations):
            raise InvalidInputError(f"Expected PlasmaConcentrations, got {type(plasma)}")
        values = plasma.as_array()
        for species, value in zip(SOLUTES, values):
            if not math.isfinite(value):
                raise InvalidInputError(f"{SPECIES_LABELS[species]} concentration must be finite, got {value}")
            if value < 0:
                raise InvalidInputError(f"{SPECIES_LABELS[species]} concentration cannot be negative, got {value}")
        return values

    @staticmethod
    def check_rates(rates: ReabsorptionRates) -> ReabsorptionRates:
        if not isinstance(rates, ReabsorptionRates):
            rates = ReabsorptionRates(rates)  # Raises on wrong shape
        if not np.all(np.isfinite(rates.table)):
            raise InvalidInputError("Reabsorption rates must all be finite")
        return rates

class SafetySupervisor:
    """
    Plasma range checks used by the API after a controller run.
    Returns a SafetyAlerts object (Flags).
    """
    # Clinical reference ranges (mmol/L)
    K_HIGH = 5.5
    K_LOW = 3.5
    HCO3_LOW = 22.0
    HCO3_HIGH = 26.0
    NA_HIGH = 145.0
    NA_LOW = 135.0

    @staticmethod
    def check_plasma(na: float, k: float, hco3: float) -> SafetyAlerts:
        alerts = SafetyAlerts()

        if not all(math.isfinite(v) for v in (na, k, hco3)):
            alerts.non_finite_warning = True
            alerts.messages.append("Plasma state is non-finite. Check rate table and GFR.")
            return alerts

        # 1. Potassium
        if k > SafetySupervisor.K_HIGH:
            alerts.risk_hyperkalemia = True
            alerts.messages.append(f"Hyperkalemia: K+ {k:.2f} mmol/L")
        elif k < SafetySupervisor.K_LOW:
            alerts.risk_hypokalemia = True
            alerts.messages.append(f"Hypokalemia: K+ {k:.2f} mmol/L")

        # 2. Acid-base
        if hco3 < SafetySupervisor.HCO3_LOW:
            alerts.risk_acidosis = True
            alerts.messages.append(f"Metabolic acidosis: HCO3- {hco3:.1f} mmol/L")
        elif hco3 > SafetySupervisor.HCO3_HIGH:
            alerts.risk_alkalosis = True
            alerts.messages.append(f"Metabolic alkalosis: HCO3- {hco3:.1f} mmol/L")

        # 3. Sodium
        if na > SafetySupervisor.NA_HIGH:
            alerts.risk_hypernatremia = True
            alerts.messages.append(f"Hypernatremia: Na+ {na:.1f} mmol/L")
        elif na < SafetySupervisor.NA_LOW:
            alerts.risk_hyponatremia = True
            alerts.messages.append(f"Hyponatremia: Na+ {na:.1f} mmol/L")

        return alerts

    @staticmethod
    def check_history(history: ControllerHistory) -> SafetyAlerts:
        """Flags for the final day, plus run-level model warnings."""
        alerts = SafetySupervisor.check_plasma(
            history.plasma_na[-1], history.plasma_k[-1], history.plasma_hco3[-1]
        )

        trajectories = history.plasma_na + history.plasma_k + history.plasma_hco3 + history.gfr_ml_min
        if not all(math.isfinite(v) for v in trajectories) and not alerts.non_finite_warning:
            alerts.non_finite_warning = True
            alerts.messages.append("Non-finite value recorded during the run.")

        if history.guarded_days:
            alerts.tgf_degenerate_warning = True
            alerts.messages.append(
                f"TGF update skipped (zero NaCl delivery) on day(s) {history.guarded_days}"
            )

        if history.floored_days:
            alerts.plasma_floor_warning = True
            alerts.messages.append(
                f"Plasma held at its floor (mass balance went negative) on day(s) {history.floored_days}"
            )

        return alerts
