"""
MinuteFlow meeting automation core

Buffers live meeting transcripts into minute windows, classifies
highlights and automation intents with deterministic patterns, and runs
an approval workflow before dispatching automations to external systems.
"""

__version__ = "0.1.0"

from minuteflow.automation import AutomationLifecycleManager
from minuteflow.dispatcher import WebhookDispatcher
from minuteflow.pipeline import MeetingPipeline, WindowClassification
from minuteflow.semantic.classifier import PatternClassifier
from minuteflow.storage import InMemoryStore, Store
from minuteflow.windower import IngestionWindower

__all__ = [
    "AutomationLifecycleManager",
    "IngestionWindower",
    "InMemoryStore",
    "MeetingPipeline",
    "PatternClassifier",
    "Store",
    "WebhookDispatcher",
    "WindowClassification",
]
