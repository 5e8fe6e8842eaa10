"""Psychometric profiles (Big Five, MBTI, DISC, dark traits) inferred from contact evidence."""
