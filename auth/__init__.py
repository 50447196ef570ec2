"""auth/ -- Credential and session-token lifecycle for AccountGate.

Layer rule: auth/ imports only stdlib + third-party libraries at runtime.
core.config.Settings is referenced for type checking only; callers build
TokenConfig and PasswordPolicy from it and pass them in.
api/ imports from auth/, not the other way around.
"""
