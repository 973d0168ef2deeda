class ErrorMessages:
    """Message templates shared by repositories and services."""

    DB_OPERATION_FAILED = "Database operation failed: {error_msg}"
    ATTRIBUTE_NOT_FOUND = "Attribute not found: id={att_id}"
    UNKNOWN_ATTRIBUTE_TYPE = "Unknown attribute type: {type_name}"
    INVALID_PREDICATE = "Invalid where predicate: {reason}"


class WarningMessages:
    SKIPPED_MISCONFIGURED = "Attribute %s is not properly configured, %s returns an empty result"
    UNKNOWN_COLUMN = "Attribute %s: column %s does not exist on %s"
