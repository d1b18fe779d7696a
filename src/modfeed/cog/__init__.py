"""py-cord cogs wiring the engine into the bot lifecycle."""
