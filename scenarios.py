# scenarios.py
from typing import Dict, List

from constants import ScenarioType, SETPOINTS
from models import PlasmaConcentrations, Scenario

class SCENARIO_LIBRARY:
    """
    Starting states for the controller.
    Each one perturbs the healthy setpoints in a single direction.
    """
    SPECS = {
        ScenarioType.HEALTHY: Scenario(
            label="Healthy State",
            initial_plasma=PlasmaConcentrations.healthy(),
            num_days=5,
            description="Setpoint plasma. The controller should stay in its dead-bands."
        ),
        ScenarioType.MILD_RENAL_INSUFFICIENCY: Scenario(
            label="Mild Renal Insufficiency",
            initial_plasma=PlasmaConcentrations(
                na=138.0,    # Slightly low
                k=5.5,       # Hyperkalemia
                hco3=20.0,   # Metabolic acidosis
                urea=15.0,   # Azotemia
                cl=SETPOINTS.CL,
                glucose=SETPOINTS.GLUCOSE
            ),
            num_days=20,
            description="Trouble excreting waste: high K+ and urea, low HCO3-."
        ),
        ScenarioType.HYPOKALEMIA_ALKALOSIS: Scenario(
            label="Hypokalemic Alkalosis",
            initial_plasma=PlasmaConcentrations(
                na=SETPOINTS.NA, k=3.2, hco3=29.0,
                urea=SETPOINTS.UREA, cl=SETPOINTS.CL, glucose=SETPOINTS.GLUCOSE
            ),
            num_days=20,
            description="K+ wasting with bicarbonate retention (e.g. after vomiting)."
        ),
        ScenarioType.HYPERNATREMIA: Scenario(
            label="Hypernatremia",
            initial_plasma=PlasmaConcentrations(
                na=148.0, k=SETPOINTS.K, hco3=SETPOINTS.HCO3,
                urea=SETPOINTS.UREA, cl=SETPOINTS.CL, glucose=SETPOINTS.GLUCOSE
            ),
            num_days=15
        ),
        ScenarioType.HYPONATREMIA: Scenario(
            label="Hyponatremia",
            initial_plasma=PlasmaConcentrations(
                na=130.0, k=SETPOINTS.K, hco3=SETPOINTS.HCO3,
                urea=SETPOINTS.UREA, cl=SETPOINTS.CL, glucose=SETPOINTS.GLUCOSE
            ),
            num_days=15
        ),
    }

    @staticmethod
    def get(scenario: ScenarioType) -> Scenario:
        return SCENARIO_LIBRARY.SPECS.get(scenario, SCENARIO_LIBRARY.SPECS[ScenarioType.HEALTHY])

    @staticmethod
    def describe() -> List[Dict]:
        return [
            {
                "key": key.value,
                "label": spec.label,
                "num_days": spec.num_days,
                "description": spec.description,
                "initial_plasma": spec.initial_plasma.to_dict(),
            }
            for key, spec in SCENARIO_LIBRARY.SPECS.items()
        ]
