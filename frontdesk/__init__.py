"""Hotel front-desk booking core: relay, booking model and edit workflow."""
