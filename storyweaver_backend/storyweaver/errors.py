class StoryNotFound(KeyError):
    def __init__(self, story_id: str):
        super().__init__(story_id)
        self.story_id = story_id

    def __str__(self):
        return f"story {self.story_id} not found"


class InvalidTransition(ValueError):
    """Raised when a write would move a story backwards or clear a stored reference."""


class AlreadyProcessing(RuntimeError):
    def __init__(self, story_id: str):
        super().__init__(f"story {story_id} is already being processed")
        self.story_id = story_id


class PipelineCancelled(RuntimeError):
    pass


class FilterGraphError(ValueError):
    """Raised by the concat command builder before ffmpeg is ever invoked."""
