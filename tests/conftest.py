from __future__ import annotations

import pytest

from askdata.conversation.store import ConversationStore
from askdata.policy import SystemPolicy, policy_for


@pytest.fixture
def store() -> ConversationStore:
    return ConversationStore()


@pytest.fixture
def policy() -> SystemPolicy:
    return policy_for("anthropic")
