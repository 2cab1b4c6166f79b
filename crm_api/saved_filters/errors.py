class SavedFilterError(Exception):
    """Base class for saved-filter store failures."""


class SavedFilterConflict(SavedFilterError):
    def __init__(self, name: str, entity: str):
        self.name = name
        self.entity = entity
        super().__init__(f"A filter named {name!r} already exists for {entity}")


class SavedFilterNotFound(SavedFilterError):
    def __init__(self, filter_id: str):
        self.filter_id = filter_id
        super().__init__(f"Saved filter not found: {filter_id}")
