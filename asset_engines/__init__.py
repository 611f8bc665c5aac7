"""Asset lifecycle engines: thumbnail derivatives and cascade deletion."""
