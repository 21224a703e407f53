"""HTTP client with JSON decoding, redirect handling and a mock client."""