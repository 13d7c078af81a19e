# main.py

import logging
from typing import Optional, List
from datetime import datetime
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

# Import Data Models & Logic
from constants import VERSION, ScenarioType, STREAM_LABELS, SPECIES_LABELS
from models import (
    PlasmaConcentrations,
    ReabsorptionRates,
    ControllerConfig,
    SafetyAlerts,
    InvalidInputError,
)
from nephron_engine import NephronTransportEngine
from controller import HomeostaticController
from scenarios import SCENARIO_LIBRARY
from safety import SafetySupervisor

# --- 1. CONFIGURATION & LOGGING ---
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("nephroflow-api")

app = FastAPI(
    title="NephroFlow API",
    version=VERSION,
    description="Lumped nephron transport model with a homeostatic feedback controller. \n\n"
                "**WARNING**: Teaching model only. Not for clinical use.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
def read_root():
    return {"status": "active", "message": "NephroFlow API is running successfully!"}

@app.get("/health")
def health_check():
    """K8s/AWS Health Probe"""
    return {"status": "active", "version": VERSION, "module": "nephroflow-transport-engine"}

# --- 2. STRICT INPUT SCHEMA (The Guardrails) ---
class PlasmaRequest(BaseModel):
    na: float = Field(..., ge=0.0, le=250.0, description="Plasma Na+ (mmol/L)")
    k: float = Field(..., ge=0.0, le=20.0, description="Plasma K+ (mmol/L)")
    hco3: float = Field(..., ge=0.0, le=60.0, description="Plasma HCO3- (mmol/L)")
    urea: float = Field(..., ge=0.0, le=150.0, description="Plasma urea (mmol/L)")
    cl: float = Field(..., ge=0.0, le=200.0, description="Plasma Cl- (mmol/L)")
    glucose: float = Field(0.0, ge=0.0, le=100.0, description="Plasma glucose (mmol/L)")

    def to_plasma(self) -> PlasmaConcentrations:
        return PlasmaConcentrations(**self.model_dump())

class TransportRequest(BaseModel):
    plasma: PlasmaRequest
    gfr_ml_min: float = Field(105.0, ge=0.0, le=300.0, description="GFR in mL/min")
    # 6 x 7, rows PCT..medullary CD, columns Na, K, HCO3, Urea, Cl, Glucose, Water
    rates: Optional[List[List[float]]] = Field(None, description="Reabsorption table; baseline if omitted")

    class Config:
        json_schema_extra = {
            "example": {
                "plasma": {"na": 140, "k": 4.25, "hco3": 24, "urea": 4.75, "cl": 101, "glucose": 5.0},
                "gfr_ml_min": 105.0
            }
        }

class ControlRequest(BaseModel):
    scenario: Optional[ScenarioType] = Field(None, description="Preset starting state")
    plasma: Optional[PlasmaRequest] = Field(None, description="Explicit starting state (overrides scenario)")
    num_days: Optional[int] = Field(None, ge=0, le=365, description="Required with plasma; defaults to the scenario's day count")

    learning_rate_na: Optional[float] = Field(None, ge=0.0, le=1.0)
    learning_rate_k: Optional[float] = Field(None, ge=0.0, le=1.0)
    learning_rate_hco3: Optional[float] = Field(None, ge=0.0, le=1.0)
    total_body_water_l: Optional[float] = Field(None, gt=1.0, le=100.0)

    request_timestamp: Optional[datetime] = Field(default_factory=datetime.now)

    class Config:
        json_schema_extra = {
            "example": {"scenario": "mild_renal_insufficiency", "num_days": 20}
        }

# --- 3. EXPLICIT RESPONSE SCHEMA (The Contract) ---
class TransportResponse(BaseModel):
    stream_labels: List[str]
    species_labels: List[str]
    streams: List[List[float]]           # mol/hr, column 0 = total
    concentrations: List[List[float]]    # mol/L
    mole_fractions: List[List[float]]
    reabsorbed_flows: List[List[float]]  # mol/hr per segment
    daily_excretion: List[float]         # mol/day
    nacl_delivery: float                 # mol/hr

class ControlResponse(BaseModel):
    scenario_label: str
    num_days: int
    history: dict
    final_plasma: dict
    alerts: SafetyAlerts
    generated_at: datetime = Field(default_factory=datetime.now)

# --- 4. ENDPOINTS ---

@app.get("/scenarios")
def list_scenarios():
    return {"scenarios": SCENARIO_LIBRARY.describe()}

@app.post("/transport", response_model=TransportResponse)
def run_transport(request: TransportRequest):
    """
    Single pass of the nephron at one GFR.
    Returns the stream table and everything derived from it.
    """
    try:
        logger.info(f"Transport pass at GFR {request.gfr_ml_min} mL/min")
        rates = ReabsorptionRates(request.rates) if request.rates is not None else ReabsorptionRates.baseline()
        result = NephronTransportEngine.simulate(
            request.plasma.to_plasma(),
            HomeostaticController.engine_gfr(request.gfr_ml_min),
            rates
        )
        return {
            "stream_labels": STREAM_LABELS,
            "species_labels": SPECIES_LABELS,
            "streams": result.streams.tolist(),
            "concentrations": result.concentrations.tolist(),
            "mole_fractions": NephronTransportEngine.mole_fractions(result).tolist(),
            "reabsorbed_flows": NephronTransportEngine.reabsorbed_flows(result).tolist(),
            "daily_excretion": NephronTransportEngine.daily_excretion(result).tolist(),
            "nacl_delivery": NephronTransportEngine.nacl_delivery(result),
        }

    except InvalidInputError as e:
        logger.warning(f"Transport Validation Error: {str(e)}")
        raise HTTPException(status_code=422, detail=f"Transport Validation Error: {str(e)}")

    except Exception as e:
        logger.error(f"Internal Engine Failure: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal Transport Engine Error")

@app.post("/control", response_model=ControlResponse)
def run_control(request: ControlRequest):
    """
    Predicts the future: 'How does the kidney adapt over N days?'
    Returns day-indexed trajectories for graphing.
    """
    if request.scenario is None and request.plasma is None:
        raise HTTPException(status_code=422, detail="Provide either a scenario or an explicit plasma state")
    if request.plasma is not None and request.num_days is None:
        raise HTTPException(status_code=422, detail="num_days is required with an explicit plasma state")

    try:
        # 1. Resolve the starting state
        scenario = SCENARIO_LIBRARY.get(request.scenario or ScenarioType.HEALTHY)
        if request.plasma is not None:
            initial = request.plasma.to_plasma()
            label = "Custom"
        else:
            initial = scenario.initial_plasma
            label = scenario.label
        num_days = request.num_days if request.num_days is not None else scenario.num_days

        # 2. Only override what the caller actually sent
        overrides = {
            name: getattr(request, name)
            for name in ('learning_rate_na', 'learning_rate_k', 'learning_rate_hco3', 'total_body_water_l')
            if getattr(request, name) is not None
        }
        config = ControllerConfig(**overrides)

        logger.info(f"Control run '{label}' for {num_days} days")

        # 3. Run the loop
        history = HomeostaticController.run(initial, num_days, config)
        alerts = SafetySupervisor.check_history(history)

        return {
            "scenario_label": label,
            "num_days": num_days,
            "history": history.to_dict(),
            "final_plasma": {
                "na": history.plasma_na[-1],
                "k": history.plasma_k[-1],
                "hco3": history.plasma_hco3[-1],
            },
            "alerts": alerts,
        }

    except InvalidInputError as e:
        logger.warning(f"Controller Validation Error: {str(e)}")
        raise HTTPException(status_code=422, detail=f"Controller Validation Error: {str(e)}")

    except Exception as e:
        logger.error(f"Internal Controller Failure: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal Homeostatic Controller Error")
