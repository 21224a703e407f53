"""Protocol-sniffing TCP listener, matchers and rate-limited connections."""