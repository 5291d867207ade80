"""
Logger for dhl. Every message is emitted as a single-line JSON record.
"""

import inspect
import logging
from datetime import datetime

from pydantic import BaseModel


class LogLine(BaseModel):
    """
    Represents a line in the dhl log
    """

    time: str
    level: str
    caller_file: str
    caller_name: str
    caller_line: int
    message: str


class DhlLogger:
    """
    Logger class
    """

    def __init__(self, name: str = "dhl") -> None:
        self.logger = logging.getLogger(name)
        if self.logger.level == logging.NOTSET:
            self.logger.setLevel(logging.INFO)

    def log(self, debug_message: str, level: int) -> None:
        """
        Log the debug message with the caller's location attached.
        """
        debug_message = debug_message.replace("\n", " ")

        caller_file = "unknown"
        caller_name = "unknown"
        caller_line = 0
        frame = inspect.currentframe()
        caller_frame = frame.f_back if frame is not None else None
        if caller_frame is not None:
            caller_file = caller_frame.f_code.co_filename.split("/")[-1]
            caller_name = caller_frame.f_code.co_name
            caller_line = caller_frame.f_lineno

        self.logger.log(
            level=level,
            msg=LogLine(
                time=str(datetime.now()),
                level=logging.getLevelName(level),
                caller_file=caller_file,
                caller_name=caller_name,
                caller_line=caller_line,
                message=debug_message,
            ).model_dump_json(),
        )
