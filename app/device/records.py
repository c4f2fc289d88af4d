import uuid

from pydantic import ValidationError as SchemaValidationError

from app.device.exceptions import ValidationError
from app.schemas.child_record import ChildRecordCreate, describe_validation_error

HEALTH_ID_PREFIX = "CHB"


def generate_health_id() -> str:
    return f"{HEALTH_ID_PREFIX}{uuid.uuid4().hex[:12].upper()}"


def new_child_record(**fields) -> ChildRecordCreate:
    """Build a record captured on the device.

    The ``healthId`` is assigned here, once, before the record is stored
    anywhere. Missing or malformed fields raise ``ValidationError``.
    """
    fields.pop("health_id", None)
    fields.pop("healthId", None)
    try:
        return ChildRecordCreate.model_validate({**fields, "health_id": generate_health_id()})
    except SchemaValidationError as e:
        raise ValidationError(describe_validation_error(e)) from e
