class UniqueViolation(Exception):
    """A write was rejected by a unique constraint of the store.

    Raised by repositories; services translate it into a ConflictError with a
    message that fits the operation.
    """

    def __init__(self, constraint: str = ""):
        super().__init__(constraint or "unique constraint violated")
        self.constraint = constraint


class MissingReference(Exception):
    """A write named a row that does not exist (foreign key check failed).

    ``constraint`` is the foreign key name, e.g. ``fk_records_student``.
    """

    def __init__(self, constraint: str = ""):
        super().__init__(constraint or "foreign key constraint failed")
        self.constraint = constraint
