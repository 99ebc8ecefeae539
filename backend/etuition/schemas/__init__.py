# Pydantic API contracts; one module per resource plus shared envelopes in common.py
