"""
NephroFlow: Homeostatic Controller
==================================
Multi-day closed loop. Each day:

    AdjustRates -> SolveGFR (TGF) -> ComputeDailyOutput -> UpdatePlasma -> RecordHistory

Only Na+, K+ and HCO3- close the loop. Urea, Cl- and glucose are carried
through the whole-body mass balance but never written back to the plasma state.
"""

import logging
import math
from dataclasses import replace
from typing import Tuple

import numpy as np

from models import (
    PlasmaConcentrations,
    ReabsorptionRates,
    ControllerConfig,
    ControllerHistory,
    DailyRecord,
    InvalidInputError,
)
from constants import (
    Species,
    Segment,
    SECRETING_CELLS,
    SPECIES_LABELS,
    PHYSICS_CONSTANTS,
    CONTROL_CONSTANTS,
)
from nephron_engine import NephronTransportEngine

logger = logging.getLogger("nephroflow-controller")

class HomeostaticController:
    """
    Nudges reabsorption parameters toward restoring plasma Na+/K+/HCO3-
    while holding GFR inside a bounded range through tubuloglomerular feedback.
    """

    # --- 1. ADJUST RATES ---

    @staticmethod
    def adjust_rates(rates: ReabsorptionRates,
                     plasma: PlasmaConcentrations,
                     config: ControllerConfig) -> ReabsorptionRates:
        """
        Proportional step per signal, evaluated Na -> K -> HCO3, then saturation.
        Returns a new rate set; the input is left untouched.
        """
        table = rates.table.copy()
        setpoints = config.setpoints

        # == SODIUM AND WATER ==
        if plasma.na > setpoints.na + CONTROL_CONSTANTS.NA_DEAD_BAND:
            table[Segment.DCT, Species.NA] -= config.learning_rate_na
            table[Segment.CORTICAL_DUCT, Species.WATER] += config.learning_rate_na
        elif plasma.na < setpoints.na - CONTROL_CONSTANTS.NA_DEAD_BAND:
            table[Segment.DCT, Species.NA] += config.learning_rate_na
            table[Segment.CORTICAL_DUCT, Species.WATER] -= config.learning_rate_na

        # == POTASSIUM ==
        # Excretion is driven by pushing collecting-duct reabsorption negative (secretion)
        if plasma.k > setpoints.k + CONTROL_CONSTANTS.K_DEAD_BAND:
            table[Segment.CORTICAL_DUCT, Species.K] -= config.learning_rate_k
            table[Segment.MEDULLARY_DUCT, Species.K] -= config.learning_rate_k
        elif plasma.k < setpoints.k - CONTROL_CONSTANTS.K_DEAD_BAND:
            table[Segment.CORTICAL_DUCT, Species.K] += config.learning_rate_k
            table[Segment.MEDULLARY_DUCT, Species.K] += config.learning_rate_k

        # == BICARBONATE (pH) ==
        if plasma.hco3 < setpoints.hco3 - CONTROL_CONSTANTS.HCO3_DEAD_BAND:  # Acidosis
            table[Segment.PCT, Species.HCO3] += config.learning_rate_hco3
        elif plasma.hco3 > setpoints.hco3 + CONTROL_CONSTANTS.HCO3_DEAD_BAND:  # Alkalosis
            table[Segment.PCT, Species.HCO3] -= config.learning_rate_hco3

        return HomeostaticController.clamp_rates(ReabsorptionRates(table))

    @staticmethod
    def clamp_rates(rates: ReabsorptionRates) -> ReabsorptionRates:
        """
        Saturation on the full set: [0, 0.99] everywhere, [-5.0, 0.99] for
        collecting-duct K+. Idempotent.
        """
        table = np.clip(rates.table, CONTROL_CONSTANTS.RATE_MIN, CONTROL_CONSTANTS.RATE_MAX)
        for segment, species in SECRETING_CELLS:
            table[segment, species] = min(
                max(rates.table[segment, species], CONTROL_CONSTANTS.SECRETION_RATE_MIN),
                CONTROL_CONSTANTS.RATE_MAX
            )
        return ReabsorptionRates(table)

    # --- 2. TUBULOGLOMERULAR FEEDBACK ---

    @staticmethod
    def engine_gfr(gfr_ml_min: float) -> float:
        return gfr_ml_min / PHYSICS_CONSTANTS.GFR_ENGINE_DIVISOR

    @staticmethod
    def solve_gfr(plasma: PlasmaConcentrations,
                  rates: ReabsorptionRates,
                  config: ControllerConfig,
                  healthy_delivery: float) -> Tuple[float, bool]:
        """
        Damped fixed-point search with a hard iteration budget (no convergence test).
        Returns (gfr_ml_min, guarded). guarded is True when a zero or non-finite
        NaCl delivery forced an iteration to keep its previous GFR.
        """
        current_gfr = max(config.gfr_min_ml_min, min(config.gfr_max_ml_min, config.baseline_gfr_ml_min))
        guarded = False

        for iteration in range(config.tgf_iterations):
            result = NephronTransportEngine.simulate(
                plasma, HomeostaticController.engine_gfr(current_gfr), rates
            )
            delivery = NephronTransportEngine.nacl_delivery(result)

            if not math.isfinite(delivery) or delivery <= CONTROL_CONSTANTS.DELIVERY_FLOOR:
                # Keep the previous candidate rather than divide by ~0
                logger.warning(
                    "TGF iteration %d: degenerate NaCl delivery (%r mol/hr), GFR held at %.2f mL/min",
                    iteration + 1, delivery, current_gfr
                )
                guarded = True
                continue

            tgf_factor = healthy_delivery / delivery
            current_gfr = config.baseline_gfr_ml_min * tgf_factor
            current_gfr = max(config.gfr_min_ml_min, min(config.gfr_max_ml_min, current_gfr))

            logger.debug(
                "TGF iteration %d: delivery=%.5f mol/hr | factor=%.4f | GFR=%.2f mL/min",
                iteration + 1, delivery, tgf_factor, current_gfr
            )

        return current_gfr, guarded

    # --- 3. DAILY OUTPUT & MASS BALANCE ---

    @staticmethod
    def compute_daily_output(plasma: PlasmaConcentrations,
                             rates: ReabsorptionRates,
                             gfr_ml_min: float) -> np.ndarray:
        """Final urine over one day (mol/day, 7 components)."""
        result = NephronTransportEngine.simulate(
            plasma, HomeostaticController.engine_gfr(gfr_ml_min), rates
        )
        return NephronTransportEngine.daily_excretion(result)

    @staticmethod
    def update_plasma(plasma: PlasmaConcentrations,
                      daily_loss: np.ndarray,
                      healthy_daily_loss: np.ndarray,
                      total_body_water_l: float) -> Tuple[PlasmaConcentrations, bool]:
        """
        Whole-body mass balance.
        Net change = what a healthy kidney would have excreted - what this one did.
        Only Na+, K+, HCO3- are written back.
        Returns (new plasma, floored). floored is True when a written-back
        concentration or the body water had to be held at its floor.
        """
        net_change = healthy_daily_loss - daily_loss

        # 1. Current pools (mol)
        body_moles = plasma.as_array() * total_body_water_l / PHYSICS_CONSTANTS.MMOL_PER_MOL
        body_water_moles = (
            total_body_water_l * PHYSICS_CONSTANTS.WATER_DENSITY_G_L / PHYSICS_CONSTANTS.WATER_MOLAR_MASS_G_MOL
        )

        # 2. Apply the day's net change
        new_body_moles = body_moles + net_change[:Species.WATER]
        new_body_water_moles = body_water_moles + net_change[Species.WATER]
        new_body_water_l = (
            new_body_water_moles * PHYSICS_CONSTANTS.WATER_MOLAR_MASS_G_MOL / PHYSICS_CONSTANTS.WATER_DENSITY_G_L
        )
        floored = False
        if not new_body_water_l > CONTROL_CONSTANTS.BODY_WATER_FLOOR_L:
            logger.warning(
                "Mass balance: body water %.4f L below floor, held at %.4f L",
                new_body_water_l, CONTROL_CONSTANTS.BODY_WATER_FLOOR_L
            )
            new_body_water_l = CONTROL_CONSTANTS.BODY_WATER_FLOOR_L
            floored = True

        # 3. New concentrations (mmol/L)
        new_conc = new_body_moles / new_body_water_l * PHYSICS_CONSTANTS.MMOL_PER_MOL

        # 4. Keep the fed-back species non-negative so the next day can run
        for species in (Species.NA, Species.K, Species.HCO3):
            if not new_conc[species] >= CONTROL_CONSTANTS.PLASMA_FLOOR_MMOL_L:
                logger.warning(
                    "Mass balance: %s %.4f mmol/L below floor, held at %.1f",
                    SPECIES_LABELS[species], new_conc[species], CONTROL_CONSTANTS.PLASMA_FLOOR_MMOL_L
                )
                new_conc[species] = CONTROL_CONSTANTS.PLASMA_FLOOR_MMOL_L
                floored = True

        logger.debug(
            "Mass balance: dNa=%.4f dK=%.4f dHCO3=%.4f dH2O=%.2f mol | TBW %.3f -> %.3f L",
            net_change[Species.NA], net_change[Species.K], net_change[Species.HCO3],
            net_change[Species.WATER], total_body_water_l, new_body_water_l
        )

        new_plasma = replace(plasma,
            na=float(new_conc[Species.NA]),
            k=float(new_conc[Species.K]),
            hco3=float(new_conc[Species.HCO3])
        )
        return new_plasma, floored

    # --- 4. SETUP ---

    @staticmethod
    def healthy_reference(config: ControllerConfig) -> Tuple[float, np.ndarray]:
        """
        Engine run at setpoint plasma, baseline rates and baseline GFR.
        Returns (NaCl delivery baseline, healthy daily loss).
        """
        result = NephronTransportEngine.simulate(
            config.setpoints,
            HomeostaticController.engine_gfr(config.baseline_gfr_ml_min),
            config.baseline_rates
        )
        return NephronTransportEngine.nacl_delivery(result), NephronTransportEngine.daily_excretion(result)

    # --- 5. MAIN LOOP ---

    @staticmethod
    def simulate_day(day: int,
                     plasma: PlasmaConcentrations,
                     rates: ReabsorptionRates,
                     config: ControllerConfig,
                     healthy_delivery: float,
                     healthy_daily_loss: np.ndarray) -> Tuple[PlasmaConcentrations, ReabsorptionRates, DailyRecord]:
        adjusted = HomeostaticController.adjust_rates(rates, plasma, config)
        gfr_ml_min, guarded = HomeostaticController.solve_gfr(plasma, adjusted, config, healthy_delivery)
        daily_loss = HomeostaticController.compute_daily_output(plasma, adjusted, gfr_ml_min)
        new_plasma, floored = HomeostaticController.update_plasma(
            plasma, daily_loss, healthy_daily_loss, config.total_body_water_l
        )

        record = DailyRecord(
            day=day,
            plasma_na=new_plasma.na,
            plasma_k=new_plasma.k,
            plasma_hco3=new_plasma.hco3,
            reab_na=adjusted.get(Segment.DCT, Species.NA),
            reab_h2o=adjusted.get(Segment.CORTICAL_DUCT, Species.WATER),
            reab_k=adjusted.get(Segment.CORTICAL_DUCT, Species.K),
            gfr_ml_min=gfr_ml_min,
            tgf_guarded=guarded,
            plasma_floored=floored
        )
        return new_plasma, adjusted, record

    @staticmethod
    def run(initial_plasma: PlasmaConcentrations,
            num_days: int,
            config: ControllerConfig = None) -> ControllerHistory:
        """
        PREDICTIVE LOOP:
        Runs a fixed number of days from the initial plasma state.
        A 0-day run returns the initial state unchanged.
        """
        if config is None:
            config = ControllerConfig()
        if isinstance(num_days, bool) or not isinstance(num_days, int) or num_days < 0:
            raise InvalidInputError(f"num_days must be a non-negative integer, got {num_days}")

        healthy_delivery, healthy_daily_loss = HomeostaticController.healthy_reference(config)

        history = ControllerHistory(initial_plasma=replace(initial_plasma))
        plasma = replace(initial_plasma)
        rates = config.baseline_rates.copy()

        logger.info(
            "Starting %d-day run: Na=%.1f K=%.2f HCO3=%.1f",
            num_days, plasma.na, plasma.k, plasma.hco3
        )

        for day in range(1, num_days + 1):
            plasma, rates, record = HomeostaticController.simulate_day(
                day, plasma, rates, config, healthy_delivery, healthy_daily_loss
            )
            history.append(record)

            logger.debug(
                "Day %d: Na=%.1f K=%.2f HCO3=%.1f | GFR=%.1f mL/min",
                day, record.plasma_na, record.plasma_k, record.plasma_hco3, record.gfr_ml_min
            )

        return history
