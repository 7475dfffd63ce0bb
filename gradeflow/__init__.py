"""gradeflow: batch grading of worksheet submissions against stored answer keys."""
