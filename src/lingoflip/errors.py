"""Exception hierarchy shared by the stores, the generator and the controller."""


class LingoFlipError(Exception):
    """Base class for every recoverable application error."""


class ConfigurationError(LingoFlipError):
    pass


class AuthError(LingoFlipError):
    """Invalid credentials, unconfirmed account or an expired session."""


class PersistenceError(LingoFlipError):
    """Network or database failure talking to the store."""


class DuplicateTopicError(PersistenceError):
    def __init__(self, name: str):
        super().__init__(f'A topic with the name "{name}" already exists.')
        self.name = name


class NotFoundError(PersistenceError):
    pass


class DeckLoadError(PersistenceError):
    pass


class GenerationError(LingoFlipError):
    """The generator returned nothing usable."""


class EmptyDefinitionListError(GenerationError):
    pass


class QuizError(LingoFlipError):
    pass


class NoCardsSelectedError(QuizError):
    pass


class QuizGenerationError(QuizError):
    pass


class AlreadyAnsweredError(QuizError):
    pass


class NavigationError(LingoFlipError):
    """An event was dispatched from a view that does not accept it."""


class OperationInProgressError(LingoFlipError):
    def __init__(self, label: str):
        super().__init__(f"Please wait: {label} is still in progress.")
        self.label = label
