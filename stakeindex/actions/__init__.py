"""Query actions served over HTTP: configuration, payloads, responses, handlers, metrics and the worker."""