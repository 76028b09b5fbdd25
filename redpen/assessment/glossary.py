"""Glossary tables used to seed question prompts and definitions."""

from typing import Dict

CS_GLOSSARY: Dict[str, str] = {
    "Big O": "Big O notation describes how runtime or memory grows with input size.",
    "invariant": "A condition that remains true before and after each loop iteration.",
    "idempotent": "An operation is idempotent if repeated execution has the same effect as one execution.",
    "latency": "The delay between a request and the first meaningful response.",
    "recursion": "A function calling itself on smaller subproblems until hitting a base case.",
}

ML_GLOSSARY: Dict[str, str] = {
    "overfitting": "Overfitting happens when a model memorizes training data and fails to generalize.",
    "regularization": "Regularization adds constraints that reduce model complexity and improve generalization.",
    "gradient": "The gradient indicates how to adjust parameters to reduce loss.",
    "bias": "Systematic model error from simplifying assumptions in learning.",
    "variance": "Sensitivity of model predictions to fluctuations in training data.",
}


def glossary_for_subject(subject: str) -> Dict[str, str]:
    """Machine-learning subjects get the ML glossary, everything else the CS one."""
    return ML_GLOSSARY if "Machine" in subject else CS_GLOSSARY
