import os

from pydantic import BaseModel, ConfigDict, Field

# ---------- Config ----------
BASE_URL = os.getenv("BASE_URL", "http://localhost:8000")
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./farmtrace.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class EvaluatorConfig(BaseModel):
    """Thresholds used by the risk and route evaluator."""
    model_config = ConfigDict(frozen=True)

    temperature_threshold_c: float = Field(8.0, description="Samples strictly above this are High Risk")
    average_speed_kmh: float = Field(60.0, gt=0, description="Nominal speed for route duration estimates")


DEFAULT_EVALUATOR = EvaluatorConfig(
    temperature_threshold_c=float(os.getenv("RISK_TEMPERATURE_THRESHOLD_C", "8.0")),
    average_speed_kmh=float(os.getenv("NOMINAL_SPEED_KMH", "60.0")),
)


def trace_url(batch_code: str, base_url: str = BASE_URL) -> str:
    return f"{base_url.rstrip('/')}/trace/{batch_code}"
