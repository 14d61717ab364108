"""
Factory for creating records module.
"""
from pathlib import Path
from typing import Optional
from .services import AgencyDirectory, ContactDirectory, RecordSource
from .routes import create_agencies_blueprint, create_records_blueprint


def create_records_module(records_file: Path, gate, user_service,
                          agencies_file: Optional[Path] = None) -> dict:
    """Create records module with services and routes.

    Args:
        records_file: JSON file holding the contact array
        gate: Daily unlock gate from the quota module
        user_service: Identity provider
        agencies_file: JSON file holding the agency array, used for names and the agency listing

    Returns:
        Dictionary containing the record sources, directories and blueprints
    """
    record_source = RecordSource(records_file)
    agency_source = RecordSource(agencies_file) if agencies_file is not None else None

    contacts = ContactDirectory(record_source, agency_source)

    agencies = None
    agencies_blueprint = None
    if agency_source is not None:
        agencies = AgencyDirectory(agency_source)
        agencies_blueprint = create_agencies_blueprint(agencies, user_service)

    blueprint = create_records_blueprint(
        directory=contacts,
        gate=gate,
        user_service=user_service
    )

    return {
        "source": record_source,
        "agency_source": agency_source,
        "directory": contacts,
        "agencies": agencies,
        "blueprint": blueprint,
        "agencies_blueprint": agencies_blueprint
    }
