from typing import Iterable, List, Optional


class MatchupError(Exception):
    '''
    Base class for errors raised while running a matchup job
    '''

    def __init__(self, message: str, job_id: Optional[str] = None, file: Optional[str] = None):
        self.message = message
        self.job_id = job_id
        self.file = file
        super().__init__(str(self))

    def __str__(self) -> str:
        context = []
        if self.job_id is not None:
            context.append(f'job {self.job_id}')
        if self.file is not None:
            context.append(f'file {self.file}')
        if context:
            return f'{self.message} ({", ".join(context)})'
        return self.message

    def with_job(self, job_id: str) -> 'MatchupError':
        self.job_id = job_id
        self.args = (str(self),)
        return self


class InputError(MatchupError):
    pass


class ConfigError(MatchupError):
    pass


class BatchError(MatchupError):
    def __init__(self, errors: Iterable[Exception]):
        self.errors: List[Exception] = list(errors)
        super().__init__(f'{len(self.errors)} matchup job(s) failed')
