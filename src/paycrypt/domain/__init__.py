"""Domain model: messages, intents, results, errors and ports."""
