class SurveyToolError(Exception):
    pass


class NotFoundError(SurveyToolError):
    entity = "Entity"

    def __init__(self, entity_id: int):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} {entity_id} not found")


class SurveyNotFoundError(NotFoundError):
    entity = "Survey"


class QuestionNotFoundError(NotFoundError):
    entity = "Question"


class OptionNotFoundError(NotFoundError):
    entity = "Option"


class ResponseNotFoundError(NotFoundError):
    entity = "Response"


class ResponseAlreadyCompleteError(SurveyToolError):
    def __init__(self, response_id: int):
        self.response_id = response_id
        super().__init__(f"Response {response_id} is already complete")
