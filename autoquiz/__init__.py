"""Auto-Create: turn documents, links and topics into multiple-choice quizzes."""

__version__ = "0.1.0"
