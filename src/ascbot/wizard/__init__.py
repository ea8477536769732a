"""Interactive ``botconfig setup`` dialogue."""
