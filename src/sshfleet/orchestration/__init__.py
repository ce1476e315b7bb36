"""Process orchestration: ssh command lines, console I/O and the task executor."""
