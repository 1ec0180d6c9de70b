"""
Serverless entry point for the FacilityOps API
"""
import os

# Serverless defaults: no background scheduler between invocations
os.environ.setdefault("ENVIRONMENT", "production")
os.environ.setdefault("SLA_EVALUATION_INTERVAL", "0")

from mangum import Mangum  # noqa: E402

from facilityops.main import app  # noqa: E402

# ASGI handler; lifespan still initializes the database per cold start
handler = Mangum(app, lifespan="auto")
