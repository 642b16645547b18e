class RouteHostError(RuntimeError):
    pass


class UnknownRouteError(RouteHostError, LookupError):
    def __init__(self, unit_name: str) -> None:
        super().__init__(f"No such route: {unit_name}")
        self.unit_name = unit_name


class JobNotFoundError(RouteHostError, LookupError):
    def __init__(self, job_id: str) -> None:
        super().__init__(f"No such job: {job_id}")
        self.job_id = job_id


class OutputReadError(RouteHostError):
    pass
