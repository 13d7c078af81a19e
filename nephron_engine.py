"""
NephroFlow: Transport Engine
============================
The mass-balance core. Filters plasma at a given GFR and folds the filtrate
through the six tubule segments, producing the stream table and the derived
concentration table.

Pure functions only: no state is kept between calls.
"""

import logging
import numpy as np

# Import Data Models
from models import (
    PlasmaConcentrations,
    ReabsorptionRates,
    TransportResult,
    Stream,
)

# Import Constants
from constants import (
    Species,
    SOLUTES,
    NUM_SPECIES,
    NUM_STREAMS,
    PHYSICS_CONSTANTS,
)
from safety import InputGuard

logger = logging.getLogger("nephroflow-engine")

class NephronTransportEngine:
    """
    The Mathematical Core.
    Plasma + GFR -> Filtrate -> Six Segments -> Stream & Concentration Tables.
    """

    @staticmethod
    def _filter_plasma(conc_mmol_l: np.ndarray, gfr: float) -> np.ndarray:
        """
        Stream 1 (entering the PCT).
        Units: (mmol/L) * (L/hr) * (1 mol / 1000 mmol) = mol/hr
        """
        filtrate = np.zeros(NUM_SPECIES)
        filtrate[list(SOLUTES)] = conc_mmol_l * gfr / PHYSICS_CONSTANTS.MMOL_PER_MOL

        # Water: (1000 g/L * GFR L/hr) / 18 g/mol
        filtrate[Species.WATER] = (
            PHYSICS_CONSTANTS.WATER_DENSITY_G_L * gfr / PHYSICS_CONSTANTS.WATER_MOLAR_MASS_G_MOL
        )
        return filtrate

    @staticmethod
    def _apply_segments(filtrate: np.ndarray, remaining: np.ndarray) -> np.ndarray:
        """
        Strict left-to-right fold: stream i+1 = stream i * (1 - reab[i]).
        Column 0 is the total, recomputed from the species every row.
        """
        streams = np.zeros((NUM_STREAMS, NUM_SPECIES + 1))
        streams[0, 1:] = filtrate
        streams[0, 0] = np.sum(streams[0, 1:])

        for i in range(remaining.shape[0]):
            streams[i + 1, 1:] = streams[i, 1:] * remaining[i]
            streams[i + 1, 0] = np.sum(streams[i + 1, 1:])

        return streams

    @staticmethod
    def _derive_concentrations(streams: np.ndarray) -> np.ndarray:
        """
        Solute concentrations (mol/L) per stream.
        Volume (L) = water moles * 18 / 1000. Epsilon keeps a dry stream finite.
        """
        water = streams[:, 1 + Species.WATER]
        volume_l = water * PHYSICS_CONSTANTS.WATER_MOLAR_MASS_G_MOL / PHYSICS_CONSTANTS.WATER_DENSITY_G_L
        solute_cols = [1 + s for s in SOLUTES]
        return streams[:, solute_cols] / (volume_l[:, None] + PHYSICS_CONSTANTS.VOLUME_EPSILON_L)

    @staticmethod
    def simulate(plasma: PlasmaConcentrations, gfr: float, rates: ReabsorptionRates) -> TransportResult:
        """
        Single-pass nephron calculation for one GFR and one rate set.

        gfr is in the engine flow scale (L/hr); the controller passes mL/min / 60.
        Raises InvalidInputError on negative or non-finite inputs.
        """
        conc = InputGuard.check_plasma(plasma)
        gfr = InputGuard.check_gfr(gfr)
        rates = InputGuard.check_rates(rates)

        filtrate = NephronTransportEngine._filter_plasma(conc, gfr)
        streams = NephronTransportEngine._apply_segments(filtrate, rates.remaining())
        concentrations = NephronTransportEngine._derive_concentrations(streams)

        logger.debug(
            "simulate: GFR=%.4f | filtered total=%.4f mol/hr | urine total=%.4f mol/hr",
            gfr, streams[0, 0], streams[-1, 0]
        )

        return TransportResult(streams=streams, concentrations=concentrations, gfr=gfr)

    # --- DERIVED QUANTITIES ---

    @staticmethod
    def nacl_delivery(result: TransportResult) -> float:
        """Na+ + Cl- flow leaving the thick ascending limb (the macula densa signal)."""
        row = result.streams[PHYSICS_CONSTANTS.TGF_SENSING_STREAM]
        return float(row[1 + Species.NA] + row[1 + Species.CL])

    @staticmethod
    def final_urine(result: TransportResult) -> Stream:
        return result.final_urine

    @staticmethod
    def daily_excretion(result: TransportResult) -> np.ndarray:
        """Final urine species flows converted from mol/hr to mol/day (7 components)."""
        return result.streams[-1, 1:] * PHYSICS_CONSTANTS.HOURS_PER_DAY

    @staticmethod
    def mole_fractions(result: TransportResult) -> np.ndarray:
        """
        x_i = n_i / n_total for every stream (7 x 7).
        A stream with zero total flow reports zero fractions.
        """
        totals = result.streams[:, 0]
        fractions = np.zeros_like(result.streams[:, 1:])
        nonzero = totals != 0
        fractions[nonzero] = result.streams[nonzero, 1:] / totals[nonzero, None]
        return fractions

    @staticmethod
    def reabsorbed_flows(result: TransportResult) -> np.ndarray:
        """
        Flow removed by each segment (input stream - output stream), 6 x 7, mol/hr.
        Negative entries are net secretion into the tubule.
        """
        species = result.streams[:, 1:]
        return species[:-1] - species[1:]
