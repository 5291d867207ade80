"""
Shared fixtures for dhl tests.
"""

import pytest

from dhl_test_utils import BuildLayout, RecordingAnnouncer


@pytest.fixture
def layout(tmp_path):
    return BuildLayout(tmp_path)


@pytest.fixture
def announcer():
    return RecordingAnnouncer()
