"""Element selection: usage tracking, compatibility rules, rotation and session quotas."""
