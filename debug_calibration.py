# debug_calibration.py
from nephron_engine import NephronTransportEngine
from controller import HomeostaticController
from models import PlasmaConcentrations, ReabsorptionRates, ControllerConfig, TransportResult
from constants import STREAM_LABELS, SPECIES_LABELS, ScenarioType, CONTROL_CONSTANTS, SETPOINTS
from scenarios import SCENARIO_LIBRARY

def format_stream_table(result: TransportResult) -> str:
    """TABLE 1: Molar Flow Rates (mol/hr)"""
    lines = [f"{'Stream':<16}" + "".join(f"\tn_{s}" for s in SPECIES_LABELS) + "\tn_total"]
    for label, row in zip(STREAM_LABELS, result.streams):
        solutes = "".join(f"\t{v:.4f}" for v in row[1:-1])
        lines.append(f"{label:<16}{solutes}\t{row[-1]:.2f}\t{row[0]:.2f}")
    return "\n".join(lines)

def format_concentration_table(result: TransportResult) -> str:
    """TABLE 2: Solute Concentrations (mol/L)"""
    lines = [f"{'Stream':<16}" + "".join(f"\tC_{s}" for s in SPECIES_LABELS[:-1])]
    for label, row in zip(STREAM_LABELS, result.concentrations):
        lines.append(f"{label:<16}" + "".join(f"\t{v:.4f}" for v in row))
    return "\n".join(lines)

def run_debug():
    print("\n========================================")
    print("   NEPHROFLOW CALIBRATION DEBUGGER")
    print("========================================")

    # 1. HEALTHY SINGLE PASS
    healthy = PlasmaConcentrations.healthy()
    gfr = HomeostaticController.engine_gfr(CONTROL_CONSTANTS.BASELINE_GFR_ML_MIN)
    result = NephronTransportEngine.simulate(healthy, gfr, ReabsorptionRates.baseline())

    print("\n--- TABLE 1: Molar Flow Rates (mol/hr) ---")
    print(format_stream_table(result))
    print("\n--- TABLE 2: Solute Concentrations (mol/L) ---")
    print(format_concentration_table(result))

    delivery = NephronTransportEngine.nacl_delivery(result)
    print(f"\n > Healthy NaCl delivery (TGF baseline): {delivery:.5f} mol/hr")

    # 2. MULTI-DAY LEARNING RUN
    scenario = SCENARIO_LIBRARY.get(ScenarioType.MILD_RENAL_INSUFFICIENCY)
    print(f"\n--- RUNNING {scenario.num_days}-DAY CONTROL: {scenario.label} ---")
    history = HomeostaticController.run(scenario.initial_plasma, scenario.num_days, ControllerConfig())

    for day in history.days:
        line = (f" Day {day:>2}: [Na+] {history.plasma_na[day]:.1f}  "
                f"[K+] {history.plasma_k[day]:.2f}  [HCO3-] {history.plasma_hco3[day]:.1f}")
        if day > 0:
            line += f"  | GFR {history.gfr_ml_min[day - 1]:.1f} mL/min  K+ reab {history.reab_k[day - 1] * 100:.1f}%"
        print(line)

    # 3. VERDICT
    final_k = history.plasma_k[-1]
    if abs(final_k - SETPOINTS.K) < abs(history.plasma_k[0] - SETPOINTS.K):
        print("\n✅ SUCCESS: Potassium moved toward its setpoint.")
    else:
        print("\n❌ FAILURE: Potassium did not recover. Check learning rates.")

    return history

if __name__ == "__main__":
    run_debug()
