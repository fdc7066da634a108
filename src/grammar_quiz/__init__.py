"""Present Perfect grammar quizzes generated by a hosted language model."""

__version__ = "0.1.0"
