"""
Typed Exception Hierarchy for Facility Billing.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP handlers, report generators, invoice runs) map billing
failures onto their own contracts: 404 for a missing client, 400 for a bad
period, 500 for corrupt upstream data.  That mapping must not depend on
message wording, so every error has:

  1. a TYPED exception class (catch by type, not message)
  2. a CODE class attribute (machine-readable, API-safe)
  3. structured DATA attributes (not just a message string)

Example:
    try:
        preview = service.generate_billing_preview(client_id, company_id, 2026, 3)
    except ClientNotFoundError as e:
        return {"error": e.code}, 404
    except ValidationError as e:
        return {"error": e.code, "detail": str(e)}, 400

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FacilityBillingError (base)
    |
    +-- NotFoundError
    |   +-- ClientNotFoundError
    |   +-- FacilityNotFoundError
    |
    +-- ValidationError
    |   +-- InvalidBillingPeriodError
    |   +-- FacilityClosedError
    |
    +-- DataIntegrityError
        +-- LocationNotFoundError
        +-- DuplicateOverrideError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | CLIENT_NOT_FOUND            | No client for (client_id, company_id)
                | FACILITY_NOT_FOUND          | No facility profile for the given id
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_BILLING_PERIOD      | month outside 1-12, or wrong types
                | FACILITY_CLOSED             | Status change requested on a CLOSED facility
----------------|-----------------------------|-----------------------------------------
Data integrity  | LOCATION_NOT_FOUND          | Facility references a missing location
                | DUPLICATE_MONTHLY_OVERRIDE  | >1 override for (facility, year, month)

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Tenant isolation: a client that exists under another company raises the
   same ClientNotFoundError as a client that does not exist at all.  The
   exception never records which case applied.

2. Data integrity errors fail the whole preview.  A facility whose location
   cannot be resolved is never silently dropped from an invoice.

3. Engines raise; services log and re-raise.  No error is converted into
   degraded output.
"""


class FacilityBillingError(Exception):
    """
    Base exception for all facility billing errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FACILITY_BILLING_ERROR"


# Not-found exceptions


class NotFoundError(FacilityBillingError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class ClientNotFoundError(NotFoundError):
    """
    Client does not exist, or does not belong to the requesting company.

    Both cases are reported identically.
    """

    code: str = "CLIENT_NOT_FOUND"

    def __init__(self, client_id: str):
        self.client_id = client_id
        super().__init__(f"Client not found: {client_id}")


class FacilityNotFoundError(NotFoundError):
    """Facility profile with given ID was not found."""

    code: str = "FACILITY_NOT_FOUND"

    def __init__(self, facility_profile_id: str):
        self.facility_profile_id = facility_profile_id
        super().__init__(f"Facility profile not found: {facility_profile_id}")


# Validation exceptions


class ValidationError(FacilityBillingError):
    """Base exception for invalid caller input."""

    code: str = "VALIDATION_ERROR"


class InvalidBillingPeriodError(ValidationError):
    """Requested (year, month) is not a valid billing period."""

    code: str = "INVALID_BILLING_PERIOD"

    def __init__(self, year: object, month: object, reason: str):
        self.year = year
        self.month = month
        self.reason = reason
        super().__init__(f"Invalid billing period {year!r}-{month!r}: {reason}")


class FacilityClosedError(ValidationError):
    """
    A CLOSED facility cannot change status.

    CLOSED is terminal: no status transition, override or seasonal rule may
    reactivate it.
    """

    code: str = "FACILITY_CLOSED"

    def __init__(self, facility_profile_id: str, requested_status: str):
        self.facility_profile_id = facility_profile_id
        self.requested_status = requested_status
        super().__init__(
            f"Facility {facility_profile_id} is CLOSED and cannot "
            f"transition to {requested_status}"
        )


# Data integrity exceptions


class DataIntegrityError(FacilityBillingError):
    """Base exception for records that violate upstream constraints."""

    code: str = "DATA_INTEGRITY_ERROR"


class LocationNotFoundError(DataIntegrityError):
    """Facility profile references a location that does not exist."""

    code: str = "LOCATION_NOT_FOUND"

    def __init__(self, facility_profile_id: str, location_id: str):
        self.facility_profile_id = facility_profile_id
        self.location_id = location_id
        super().__init__(
            f"Facility profile {facility_profile_id} references missing "
            f"location {location_id}"
        )


class DuplicateOverrideError(DataIntegrityError):
    """More than one monthly override exists for a single facility-month."""

    code: str = "DUPLICATE_MONTHLY_OVERRIDE"

    def __init__(self, facility_profile_id: str, year: int, month: int, count: int):
        self.facility_profile_id = facility_profile_id
        self.year = year
        self.month = month
        self.count = count
        super().__init__(
            f"Facility profile {facility_profile_id} has {count} monthly "
            f"overrides for {year}-{month:02d}; expected at most one"
        )
