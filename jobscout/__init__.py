"""JobScout - scheduled job discovery with collaborative AI matching."""
