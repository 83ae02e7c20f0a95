"""Quick-add intent parsing.

The intent layer turns one free-form Vietnamese (or mixed English) sentence into a validated
`ParsedIntent`: a task, a calendar event or a money transaction. Smart rules, the optional LLM and
the deterministic rules fallback all produce the same model.
"""
