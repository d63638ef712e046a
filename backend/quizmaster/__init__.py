"""QuizMaster Checker - MCQ answer sheet grading backend."""
