"""Operator global settings.

The server keeps one "global" document in app_settings (store); device code
reads it through an observable provider and reacts to changes
(provider), e.g. the ``push_global_enabled`` flag that gates the opt-in
prompt.
"""
