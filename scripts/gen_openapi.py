#!/usr/bin/env python3
"""
OpenAPI specification generator for the KYB risk service.

This script generates an OpenAPI specification for the KYB Risk API.
"""

import json
from pathlib import Path

from fastapi.openapi.utils import get_openapi

from kybrisk.api import create_app


def generate_openapi_spec():
    """Generate OpenAPI specification."""
    # Building the schema does not run the lifespan, so no reference data is loaded
    app = create_app(manage_database=False)

    # Generate OpenAPI schema
    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description="Company risk profiles for KYB checks",
        routes=app.routes,
        tags=app.openapi_tags,
    )

    # Add additional info
    openapi_schema["info"]["contact"] = {
        "name": "KYB Risk Team",
        "email": "kyb-risk-team@example.com",
    }

    openapi_schema["info"]["license"] = {
        "name": "Internal Use Only",
    }

    # Create openapi directory if it doesn't exist
    openapi_dir = Path(__file__).parent.parent / "openapi"
    openapi_dir.mkdir(exist_ok=True)

    openapi_path = openapi_dir / "kybrisk.json"
    with open(openapi_path, "w") as f:
        json.dump(openapi_schema, f, indent=2)
    print(f"OpenAPI specification written to {openapi_path}")


if __name__ == "__main__":
    generate_openapi_spec()
