"""learnhub: learning-progress gamification backend."""
