"""glucosync — blood glucose sync between a vital-signs store and a care plan."""
