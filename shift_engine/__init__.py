"""Front-door dispatcher of the Shift Engine proxy portal."""
