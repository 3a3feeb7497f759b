"""
Evaluation suite -- deterministic, code-graded, no provider calls.

Run evals: pytest evals/ -v
"""
